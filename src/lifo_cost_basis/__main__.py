from .cost_basis import main

if __name__ == "__main__":

    main()
